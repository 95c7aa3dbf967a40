"""Autopilot configuration and entry cooldowns"""

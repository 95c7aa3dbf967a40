"""Telegram notifications and control channel"""

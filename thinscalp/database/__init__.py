"""Durable JSON state"""

"""Operator commands"""

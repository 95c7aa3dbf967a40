"""Momentum tick feed"""

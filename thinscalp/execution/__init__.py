"""Sharded order execution"""

"""Metrics and monitoring"""

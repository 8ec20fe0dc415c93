"""Data models for the gamification engine"""

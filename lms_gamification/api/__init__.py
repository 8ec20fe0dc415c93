"""HTTP API for the gamification engine"""

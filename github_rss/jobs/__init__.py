"""Scheduled and background generation jobs"""

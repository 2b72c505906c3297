"""GitHub API access"""

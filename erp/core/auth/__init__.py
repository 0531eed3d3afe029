"""认证相关"""

"""Residential Admin - Audit Trail"""

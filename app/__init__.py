"""Tablebook API"""

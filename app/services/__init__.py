"""Reservation services: metrics, data source, cache, dashboard and access"""

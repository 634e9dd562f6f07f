"""Agent functions deployed as their own application"""

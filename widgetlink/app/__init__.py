"""
Diagnostics web app for widgetlink.
"""

"""
Django admin configuration for core app.
"""
from django.contrib import admin


admin.site.site_header = "Accredit Administration"
admin.site.site_title = "Accredit Admin"
admin.site.index_title = "Welcome to Accredit Administration"

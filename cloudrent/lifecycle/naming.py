import re


def _clean(value, replacement):
    return re.sub(r'[^a-z0-9]', replacement, (value or '').lower())


def sanitize_username(username):
    return _clean(username, '')


def technical_hostname(owner_id, username, template, resource_id):
    """Hostname do CT no Proxmox: <owner6>-<user>-<template>-<resource8>."""
    return f"{str(owner_id)[:6]}-{sanitize_username(username)}-{template.lower()}-{str(resource_id)[:8]}"


def generate_subdomain(prefix, username, instance_name):
    """Formato: <prefixo>-<user>-<instância>, sem hífens repetidos nem nas pontas."""
    subdomain = f"{_clean(prefix, '')}-{sanitize_username(username)}-{_clean(instance_name, '-')}"
    subdomain = re.sub(r'-+', '-', subdomain)
    return subdomain.strip('-')

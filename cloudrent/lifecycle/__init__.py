"""
Motor de ciclo de vida dos recursos: alocação, provisionamento, remoção,
cobrança, snapshots/backups e lembretes. Montado pelo LifecycleEngine.
"""

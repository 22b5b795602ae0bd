"""
CLI de forja (typer + rich). Solo compone comandos; la lógica vive en core y providers.
"""

"""
Layered configuration files. See dcsbios.config.config.load_config.
"""

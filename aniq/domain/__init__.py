"""Domain Layer: models, errors, events and the ports (interfaces) the
core depends on. Has no dependency on infrastructure code.
"""

"""Domain Layer: value objects, events, errors and interfaces (ports).

Has no dependency on the infrastructure layer.
"""

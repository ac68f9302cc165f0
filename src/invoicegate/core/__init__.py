"""
Core domain models, error taxonomy and payload contracts.

Модули этого пакета не зависят от хранилища и сервисного слоя.
"""

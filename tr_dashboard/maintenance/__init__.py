from .operations import CONFIRMATION_TOKEN, MaintenanceOperations, MaintenanceResult

__all__ = ['CONFIRMATION_TOKEN', 'MaintenanceOperations', 'MaintenanceResult']

"""
BikeBuilders - garage records core.

Owns the dataset of a vehicle-service garage (customers, vehicles, service
jobs, parts, price catalog, garage profile) and keeps it durable in a local
SQLite store, portable as a JSON export file, and backed up to a remote
folder.

Usage:
    # CLI
    bikebuilders init
    bikebuilders sync upload

    # Programmatic
    from bikebuilders.application.container import Container

    container = Container(Path("config"))
    container.workshop_service.register_vehicle("KA01AB1234", "Asha", phone="9000000001")
"""

__version__ = "0.1.0"
__author__ = "BikeBuilders Team"

__all__ = ["__version__"]

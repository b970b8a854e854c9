"""svcman - install and control services through the host's native service manager."""

"""Route modules. Each one attaches its handlers to supplyhub.api.common.bp."""

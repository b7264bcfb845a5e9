"""Django project package for the clinic workflow backend."""

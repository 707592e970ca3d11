"""Asynchronous image/video generation queue for storyboard entities"""

__version__ = "1.0.0"

"""Configuration module - re-exports all config values."""
from .paths import *
from .gateway import *
from .notifier import *
from .logging import *

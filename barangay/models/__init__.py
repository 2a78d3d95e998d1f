"""Case module data shapes and enumerations."""

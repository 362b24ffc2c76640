"""Test package initialisation for antecedent tests."""

"""Tests for the users app."""

"""Core domain layer: entities, value objects, interfaces and exceptions"""

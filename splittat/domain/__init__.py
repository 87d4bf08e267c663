"""
Domain layer - Core business entities and split allocation rules.

This layer contains the receipt/split value objects, the allocation engine
and the domain exceptions, independent of any infrastructure or framework
concerns.
"""

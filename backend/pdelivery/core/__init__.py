"""
Core package for shared configuration and structured logging.
"""

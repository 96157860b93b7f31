"""JPMS module descriptors: patterns, JAR inspection, assembly and writers."""

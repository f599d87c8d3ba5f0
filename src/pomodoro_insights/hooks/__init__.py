"""Entry points for timer front ends that shell out to record sessions."""

"""
Upload orchestration and the user-visible run log.
"""

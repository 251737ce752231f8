"""
Webapp Module
HTTP 接口
"""

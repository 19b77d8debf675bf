"""
功能模块目录
每个子目录是一个模块，由 core.loader 按 {module_id}_manifest.py 发现并加载
"""

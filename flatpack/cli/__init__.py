"""flatpack 命令行接口。"""

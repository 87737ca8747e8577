import json
import os
from types import SimpleNamespace

# image_loader_config 的默认值
DEFAULT_LOADER_CONFIG = {
    "max_concurrent": 4,
    "durable_store_type": "local",
    "durable_dir": "/tmp/image_cache",
    "directory_layout": "hash2",
    "mem_cache_capacity_bytes": 256 * 1024 * 1024,
    "mem_cache_max_entries": 0,
    "request_timeout_sec": 30.0,
    "user_agent": "image-retrieval-manager/0.1",
    "write_behind_interval_sec": 0.5,
    "log_level": "INFO",
    "debug_log_file": None,
}


def dict_to_namespace(d):
    """递归地把 dict / list 转为 SimpleNamespace，支持点号访问"""
    if isinstance(d, dict):
        return SimpleNamespace(**{k: dict_to_namespace(v) for k, v in d.items()})
    elif isinstance(d, list):
        return [dict_to_namespace(item) for item in d]
    else:
        return d


def load_config_from_json(config_path: str = None):
    """
    从JSON配置文件加载配置

    Args:
        config_path (str): 配置文件路径，默认为项目根目录的config.json

    Returns:
        SimpleNamespace: 包含配置信息的对象
    """
    if config_path is None:
        # 项目根目录 = image_retrieval_manager 的父目录
        current_dir = os.path.dirname(os.path.abspath(__file__))
        project_root = os.path.dirname(current_dir)
        config_path = os.path.join(project_root, 'config.json')

    if not os.path.exists(config_path):
        raise FileNotFoundError(f"配置文件 {config_path} 不存在")

    with open(config_path, 'r', encoding='utf-8') as f:
        config_dict = json.load(f)

    return dict_to_namespace(config_dict)


def merge_config_with_defaults(config, defaults):
    """
    将配置与默认值合并

    Args:
        config (SimpleNamespace): 用户配置，可以为 None
        defaults (dict): 默认配置字典

    Returns:
        SimpleNamespace: 合并后的配置
    """
    def merge_dict_with_namespace(default_dict, namespace):
        result = dict(default_dict)
        if namespace is None:
            return result
        items = namespace.items() if isinstance(namespace, dict) else vars(namespace).items()
        for key, value in items:
            if key in result and isinstance(result[key], dict) and isinstance(value, (SimpleNamespace, dict)):
                result[key] = merge_dict_with_namespace(result[key], value)
            else:
                result[key] = value
        return result

    merged_dict = merge_dict_with_namespace(defaults, config)
    return dict_to_namespace(merged_dict)


def resolve_loader_config(config=None):
    """取出 image_loader_config 段（若存在）并补齐默认值。

    兼容两种形式：整份 config.json 解析结果，或直接就是 image_loader_config。
    """
    if config is None:
        return dict_to_namespace(dict(DEFAULT_LOADER_CONFIG))
    section = getattr(config, "image_loader_config", None)
    if section is None and isinstance(config, dict):
        section = config.get("image_loader_config", config)
    if section is None:
        section = config
    return merge_config_with_defaults(section, DEFAULT_LOADER_CONFIG)

"""Item preparation pipelines."""

from memory_rescue.pipelines.fragments import FragmentExtractor, build_memory_item

__all__ = ["FragmentExtractor", "build_memory_item"]

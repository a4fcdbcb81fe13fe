# 信号分析中台 (Signal Analysis Pipeline)
# 职责：技术指标计算 -> Prompt 构建 -> LLM 调用 (含模型发现与回退) -> JSON 修复 -> 结果净化
__version__ = "1.0.0"

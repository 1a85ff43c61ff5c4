"""Visibility scoring engine.

Deterministic pipeline over a single LLM answer:
  1. Tokenizer (letters/digits, lowercase)
  2. Alias Matcher (longest alias first, 1-based positions)
  3. Metric Calculators (Visibility Index, Share of Answers, sentiment)
  4. Hybrid Scoring Orchestrator (LLM-verified counts + local positions)

Input:  raw answer text + brand/competitor alias sets
Output: ScoreRow per competitor
"""

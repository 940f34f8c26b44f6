"""
AudioBrief: Broadcast Audio Analysis Pipeline

Pipeline Stages (fixed order):
    1. Decode
    2. Signal analysis (DSP silence and amplitude)   ┐ concurrent
    3. Semantic analysis (external model)            ┘
    4. Reconciliation (parse, salvage, fallback)
    5. Naming (token pattern expansion)
    6. Merge into a UnifiedAnalysis

Invariants:
    - All timestamps are seconds (float)
    - DSP decides whether silence is present; the model classifies it
    - Only an undecodable source aborts a request
    - Same samples + same version = identical signal metrics
"""

__version__ = "1.0.0"

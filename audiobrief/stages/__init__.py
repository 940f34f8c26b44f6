"""
AudioBrief Pipeline Stages

    signal    - SampleWindowAnalyzer: silence intervals and peak amplitude
    semantic  - ResponseReconciler: parse, salvage or replace the model response
    naming    - NamingEngine: output filename from a token pattern
"""

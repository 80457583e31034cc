"""
Components Module
Streamlit building blocks: species selector, map rendering, query debug and session store.
"""

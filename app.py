"""Launch with ``streamlit run app.py``."""

from dashboard.app import main

if __name__ == "__main__":
    main()

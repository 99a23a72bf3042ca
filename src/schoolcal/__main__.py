import sys

from schoolcal.main import main

sys.exit(main())

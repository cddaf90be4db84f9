from streamwarp.cli.main import main

main()

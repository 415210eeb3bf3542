from aip_console_tools.cli.app import main

main()

from entra_data_tools.server import main

main()
